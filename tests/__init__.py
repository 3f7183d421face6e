import os

# Keep the panel database in memory for the test run
os.environ.setdefault('PANEL_DATABASE_URI', 'sqlite://')
