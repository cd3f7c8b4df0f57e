"""
Preview Engine — Compatibility Shim

Reserved module names served by the runtime instead of the project, and the
JavaScript assets that implement them. The React Native primitives are DOM
substitutes (see js/shim.js); react and react-dom come from the page (UMD
scripts) or from the headless stand-in in the sandbox.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

# specifier -> built-in module key
RESERVED_MODULES: dict[str, str] = {
    "react": "react",
    "react-dom": "react-dom",
    "react-dom/client": "react-dom",
    "react-native": "react-native",
    "react-native-web": "react-native",
}

BUILTIN_KEYS: frozenset[str] = frozenset(RESERVED_MODULES.values())

# Names exported by the react-native built-in, in js/shim.js order.
SHIM_EXPORTS: tuple[str, ...] = (
    "View",
    "Text",
    "TextInput",
    "Button",
    "ScrollView",
    "TouchableOpacity",
    "Pressable",
    "FlatList",
    "Image",
    "Modal",
    "SafeAreaView",
    "ActivityIndicator",
    "Alert",
    "StyleSheet",
    "Platform",
    "Dimensions",
)

SCRIPTS_DIR = Path(__file__).parent / "js"


@lru_cache(maxsize=None)
def read_script(name: str) -> str:
    """Return the text of a bundled runtime script (js/<name>)."""
    return (SCRIPTS_DIR / name).read_text(encoding="utf-8")
