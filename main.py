from __future__ import annotations

from mdm_inventory.cli import main

if __name__ == "__main__":
    main()
