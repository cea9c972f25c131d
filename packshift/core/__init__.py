# packshift/core/__init__.py
