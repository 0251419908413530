PACKAGE_NAME = "docstore-connector"
__version__ = "0.1.0"
