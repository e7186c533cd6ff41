"""tabdelta source operators.

Each subpackage provides a Connector for one source database family.
"""
