# packshift/resolve/__init__.py
