"""cvecwe — CVE keyword search with CWE enrichment and spreadsheet export.

This package searches CVE entries for a keyword, enriches each entry with
its weakness enumeration from NVD, and writes the combined result to an
``.xlsx`` report.
"""

__version__ = "0.1.0"
