# packshift/registry/__init__.py
