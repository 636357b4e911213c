"""
Retail Data Warehouse Analytics

Star-schema consolidation, OLAP summaries, RFM, k-means client
segmentation and transaction anomaly detection.
"""

__version__ = "1.0.0"
