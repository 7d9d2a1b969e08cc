"""
Games module - Built-in card sets.

Each set has its own subpackage with:
- Card records for a CardCatalog
- Ready-made deck configurations
"""
