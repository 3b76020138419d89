"""
Test suite for the group collage engine.

Unit tests for placement, geometry, state and interaction, plus end-to-end
render and export tests.
"""

import sys
from pathlib import Path

# Add the project root to the Python path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))
