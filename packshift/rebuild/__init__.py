# packshift/rebuild/__init__.py
