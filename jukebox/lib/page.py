# Remote Jukebox
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""Track-list page served on GET /."""

import html

VOLUME_STEPS = range(0, 101, 10)

_SCRIPT = """
    const password = prompt('Password');

    const send = async (path, body) => {
      const headers = { authorization: password };
      if (body !== undefined) headers['content-type'] = 'application/json';
      const response = await fetch(path, {
        method: 'POST',
        headers,
        body: body === undefined ? undefined : JSON.stringify(body),
      });
      if (response.status >= 300) alert(await response.json());
      return response;
    };

    const handleSongClick = async (element) => {
      const response = await send('/', { file: element.dataset.file });
      if (response.ok) element.style.color = 'blue';
    };

    const handleStopClick = () => send('/stop');

    const handleVolumeClick = (volume) => send('/volume', { volume: Number(volume) });
"""


def render_page(library) -> str:
    buttons = "\n".join(
        f'    <button onclick="handleVolumeClick({v})">Volume {v}%</button>'
        for v in VOLUME_STEPS
    )
    entries = "\n<hr />\n".join(
        f'<div data-file="{track.file_id}" onclick="handleSongClick(this)" '
        f'style="cursor: pointer;">{html.escape(track.short_path)}</div>'
        for track in library
    )
    return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>Jukebox</title>
  </head>
  <body>
  <script>{_SCRIPT}  </script>

  <div style="position: fixed; background: white;">
    <button onclick="handleStopClick()">STOP</button>
{buttons}
  </div>

  <div style="height: 100px;"></div>

{entries}
  </body>
</html>
"""
