"""hoaretree — build and check Hoare-logic proof trees"""

__version__ = "0.1.0"
