"""
Data loading for eurocluster.
"""

from eurocluster.data.loader import load_table, frame_to_named_matrix
