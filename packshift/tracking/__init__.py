# packshift/tracking/__init__.py
