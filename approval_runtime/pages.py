from __future__ import annotations

import html
import json
from typing import Any, Dict

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="robots" content="noindex">
<title>{title}</title>
</head>
<body>
<main>
{content}
</main>
</body>
</html>
"""

_ACTIONS_SCRIPT = """<script>
const approval = JSON.parse(document.getElementById("approval-data").textContent);
async function decide(direction) {{
  const out = document.getElementById("result");
  out.textContent = "...";
  const resp = await fetch("{api_prefix}/" + direction, {{
    method: "POST",
    headers: {{"Content-Type": "application/json"}},
    body: JSON.stringify(approval),
  }});
  const data = await resp.json();
  out.textContent = resp.ok ? data.result.body : (data.message || data.error);
  document.querySelectorAll("button").forEach((b) => b.disabled = true);
}}
</script>"""


def _json_for_script(data: Dict[str, Any]) -> str:
    return json.dumps(data).replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def render_approval_page(approval: Dict[str, Any], description: str, api_prefix: str) -> str:
    content = "\n".join(
        [
            "<h1>Approval requested</h1>",
            f'<p class="description">{html.escape(description)}</p>',
            '<button type="button" onclick="decide(\'approve\')">Approve</button>',
            '<button type="button" onclick="decide(\'reject\')">Reject</button>',
            '<p id="result" role="status"></p>',
            f'<script type="application/json" id="approval-data">{_json_for_script(approval)}</script>',
            _ACTIONS_SCRIPT.format(api_prefix=api_prefix),
        ]
    )
    return _PAGE.format(title="Approval requested", content=content)


def render_error_page(error: str) -> str:
    content = f'<h1>Error</h1>\n<p class="error">{html.escape(error)}</p>'
    return _PAGE.format(title="Error", content=content)
