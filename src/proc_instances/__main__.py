"""proc-instances entry point.

Supports: python -m proc_instances
"""

from .app import main

if __name__ == "__main__":
    main()
