"""Chronicle export: render a scene's history as a standalone HTML page.

The page lists every history entry in order, attributing player and
opponent actions to their participant and narration to the director.  All
scene text is escaped; the page never contains markup supplied by a player
or by the oracle.
"""

from __future__ import annotations

import html
import re

from chronicle_server.game.session import Scene

_STYLE = """
body{background-color:#1a1a1a;color:#e0e0e0;font-family:'Courier New',monospace;padding:20px;max-width:900px;margin:auto}
.log-entry{margin-bottom:1.5em;line-height:1.6;border-left:3px solid #4a4d6b;padding-left:15px}
strong{font-weight:bold;padding-right:10px;color:#00c3ff;display:block;margin-bottom:5px}
strong.player{color:#00ffaa}
strong.opponent{color:#ff99ff}
hr{border:1px solid #4a4d6b;margin:2em 0}
h1,h2,h3{color:#e0e0e0;text-shadow:0 0 5px #00c3ff}
""".strip()

# "NAME ACTION: " / "NAME ACTIONS: " prefix written by the resolver.
_ACTION_PREFIX_RE = re.compile(r'^[^:]*\bACTIONS?:\s*"?(?P<text>.*?)"?$', re.DOTALL)

_MODE_TITLES = {
    "sandbox": "Sandbox",
    "sandbox_combat": "Sandbox (in combat)",
    "competitive": "Competitive",
}


def _strip_action_prefix(content: str) -> str:
    match = _ACTION_PREFIX_RE.match(content)
    return match.group("text") if match else content


def _author(entry: dict, scene: Scene, director_name: str) -> tuple[str, str]:
    """Return ``(display name, css class)`` for a history entry."""
    speaker = entry.get("speaker")
    if entry.get("role") == "assistant" or speaker == "director":
        return director_name, "director"
    if speaker == "opponent":
        return scene.opponent_name or "Opponent", "opponent"
    return scene.player.name, "player"


def render_chronicle(scene: Scene, *, director_name: str) -> str:
    """Return the full HTML chronicle for ``scene``."""
    esc = html.escape
    title = _MODE_TITLES.get(scene.mode.value, scene.mode.value)

    parts = [
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '<meta charset="UTF-8">',
        f"<title>Chronicle of {esc(scene.player.name)}</title>",
        f"<style>{_STYLE}</style>",
        "</head>",
        "<body>",
        f"<h1>Chronicle ({esc(title)})</h1>",
        f"<h2>Director: {esc(director_name)}</h2>",
    ]
    if scene.setting:
        parts.append(f"<h3>Setting: {esc(scene.setting)}</h3>")
    if scene.mode.is_combat:
        parts.append(
            f"<h3>Round {scene.round} | {esc(scene.player.name)} HP: {scene.player_hp} | "
            f"{esc(scene.opponent_name)} HP: {scene.opponent_hp}</h3>"
        )
    if scene.game_over and scene.final_reason:
        parts.append(f"<h3>Outcome: {esc(scene.final_reason)}</h3>")
    parts.append("<hr>")

    for entry in scene.history:
        author, css = _author(entry, scene, director_name)
        content = entry.get("content", "")
        if css != "director":
            content = _strip_action_prefix(content)
        parts.append(
            f'<div class="log-entry"><strong class="{css}">{esc(author)}:</strong> {esc(content)}</div>'
        )

    parts.extend(["</body>", "</html>"])
    return "\n".join(parts) + "\n"


def chronicle_filename(scene: Scene) -> str:
    """Download filename, e.g. ``chronicle_<scene_id>.html``."""
    return f"chronicle_{scene.scene_id}.html"
