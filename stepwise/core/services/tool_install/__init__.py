"""
Tool installation service — package re-exports.

Each symbol lives in its single-responsibility module inside the
appropriate layer (data → resolver → detection → execution)::

    from stepwise.core.services.tool_install import ToolResolver, detect_platform
"""

# ── L0: Data ──
from stepwise.core.services.tool_install.data.recipes import TOOL_RECIPES  # noqa: F401

# ── L2: Resolver ──
from stepwise.core.services.tool_install.resolver.method_selection import (  # noqa: F401
    build_install_cmd,
    lookup_recipe,
    package_for,
    supports_platform,
)
from stepwise.core.services.tool_install.resolver.tool_resolver import (  # noqa: F401
    ToolCheck,
    ToolResolver,
    ToolStatus,
)

# ── L3: Detection ──
from stepwise.core.services.tool_install.detection.platform import (  # noqa: F401
    Platform,
    detect_platform,
    is_elevated,
)

# ── L4: Execution ──
from stepwise.core.services.tool_install.execution.subprocess_runner import (  # noqa: F401
    run_subprocess,
)
