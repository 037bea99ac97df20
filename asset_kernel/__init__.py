"""
Asset Kernel

Transfer protection and repair lifecycle for field assets (POS machines
and SIM cards) moving between branches and the maintenance center:
- Validated, exclusive inter-branch transfer orders
- Strict repair-workflow transition table
- All-or-nothing multi-entity writes
- Append-only movement and system audit log
"""

__version__ = "0.1.0"
