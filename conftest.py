"""Pytest configuration for mechanism_dynamics package.

This file ensures the package can be imported without installation.
"""

import sys
from pathlib import Path
import importlib.util

package_root = Path(__file__).parent
src_dir = package_root / "src"

# Always reload to pick up changes
if "mechanism_dynamics" in sys.modules:
    del sys.modules["mechanism_dynamics"]
    to_remove = [k for k in sys.modules.keys() if k.startswith("mechanism_dynamics.")]
    for k in to_remove:
        del sys.modules[k]

# Make 'src' importable as 'mechanism_dynamics'
spec = importlib.util.spec_from_file_location("mechanism_dynamics", src_dir / "__init__.py",
                                              submodule_search_locations=[str(src_dir)])
mechanism_dynamics = importlib.util.module_from_spec(spec)
sys.modules["mechanism_dynamics"] = mechanism_dynamics
spec.loader.exec_module(mechanism_dynamics)
