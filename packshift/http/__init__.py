# packshift/http/__init__.py
