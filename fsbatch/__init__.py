"""fsbatch - run a command once per burst of filesystem changes."""

__version__ = "0.1.0"
