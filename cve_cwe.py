#!/usr/bin/env python3
"""cvecwe — thin shim.

Allows ``python cve_cwe.py --keyword usb`` from a checkout without
installing the package.  The real implementation lives in ``cvecwe/``.
"""

from cvecwe.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
