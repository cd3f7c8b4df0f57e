"""
Preview Engine — Preview Document

Assembles the self-contained HTML page a host embeds via iframe srcdoc:
a phone-shaped frame holding #preview-root and the #preview-error overlay,
React + ReactDOM UMD scripts from the CDN (plus Babel standalone in browser
transpile mode), the build manifest as inert JSON, and the runtime.

When a build fails before anything can run in the page, render_error_document
returns the same frame with the overlay already showing and no scripts.
"""

from __future__ import annotations

import json
from typing import Any

from engine.preview.errors import PreviewError
from engine.preview.runtime import browser_bootstrap
from engine.preview.types import BuildOptions, TranspileMode


def render_document(manifest: dict[str, Any], options: BuildOptions) -> str:
    """
    Render the preview page for a build that reached the rendering stage.

    Args:
        manifest: Runtime manifest from build_manifest()
        options: Build options (title, React version, CDN, transpile mode)

    Returns:
        Complete HTML string
    """
    scripts = [
        _script_tag(f"{options.cdn_base}/react@{options.react_version}/umd/react.production.min.js"),
        _script_tag(f"{options.cdn_base}/react-dom@{options.react_version}/umd/react-dom.production.min.js"),
    ]
    if options.transpile_mode == TranspileMode.BROWSER:
        scripts.append(_script_tag(f"{options.cdn_base}/@babel/standalone/babel.min.js"))

    return f"""<!DOCTYPE html>
<html lang="en" data-preview-state="loading">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1, maximum-scale=1">
<title>{_escape_html(options.title)}</title>
{chr(10).join(scripts)}
<style>
{PREVIEW_CSS}
</style>
</head>
<body>
<div class="phone-shell">
<div class="phone-notch"></div>
<div id="preview-root" class="preview-root"></div>
<pre id="preview-error" class="preview-error" role="alert" hidden></pre>
</div>
<script type="application/json" id="preview-manifest">{_embed_json(manifest)}</script>
<script>
{browser_bootstrap()}
</script>
</body>
</html>"""


def render_error_document(error: PreviewError, options: BuildOptions) -> str:
    """Render the frame with the overlay showing `error`. Contains no scripts."""
    return f"""<!DOCTYPE html>
<html lang="en" data-preview-state="errored">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1, maximum-scale=1">
<title>{_escape_html(options.title)}</title>
<style>
{PREVIEW_CSS}
</style>
</head>
<body>
<div class="phone-shell">
<div class="phone-notch"></div>
<div id="preview-root" class="preview-root" hidden></div>
<pre id="preview-error" class="preview-error" role="alert">{_escape_html(error.describe())}</pre>
</div>
</body>
</html>"""


def _script_tag(src: str) -> str:
    return f'<script crossorigin src="{_escape_html(src)}"></script>'


def _embed_json(value: Any) -> str:
    """JSON safe inside a <script> element: no "</script", no "<!--"."""
    return json.dumps(value, ensure_ascii=True).replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def _escape_html(text: str) -> str:
    """HTML-escape text for safe embedding."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")


# ─────────────────────────────────────────────────────────────────────────────
# CSS - phone frame, resets, error overlay
# ─────────────────────────────────────────────────────────────────────────────

PREVIEW_CSS = """
* {
  box-sizing: border-box;
  margin: 0;
  padding: 0;
}

[hidden] {
  display: none !important;
}

html, body {
  height: 100%;
}

body {
  display: flex;
  align-items: center;
  justify-content: center;
  background: #1a1a1a;
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif;
  -webkit-font-smoothing: antialiased;
  overflow: hidden;
}

.phone-shell {
  position: relative;
  width: 390px;
  max-width: 100%;
  height: 100%;
  max-height: 844px;
  background: #fff;
  border-radius: 32px;
  overflow: hidden;
  box-shadow: 0 0 0 10px #000, 0 20px 60px rgba(0, 0, 0, 0.5);
}

.phone-notch {
  position: absolute;
  top: 0;
  left: 50%;
  transform: translateX(-50%);
  width: 126px;
  height: 30px;
  background: #000;
  border-bottom-left-radius: 18px;
  border-bottom-right-radius: 18px;
  z-index: 10;
}

.preview-root {
  position: absolute;
  top: 30px;
  left: 0;
  right: 0;
  bottom: 0;
  display: flex;
  flex-direction: column;
  overflow: auto;
}

.preview-root > * {
  flex: 1;
}

.preview-error {
  position: absolute;
  top: 30px;
  left: 0;
  right: 0;
  bottom: 0;
  z-index: 20;
  padding: 16px;
  background: #fff5f5;
  color: #c00;
  font-family: ui-monospace, SFMono-Regular, Menlo, Consolas, monospace;
  font-size: 12px;
  line-height: 1.5;
  white-space: pre-wrap;
  word-break: break-word;
  overflow: auto;
}
"""
