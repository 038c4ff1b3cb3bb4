"""Route modules - one router per resource, registered explicitly in main.py."""
