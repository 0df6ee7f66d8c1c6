"""
End-to-end clustering analysis.
"""

from eurocluster.analysis.analysis import Analysis
