"""
=============================================================================
HTML PAGES
=============================================================================

Renders the three pages the file manager serves. Every function here takes
plain data and returns a string; nothing touches the filesystem or the
socket.

    ┌──────────────────────┬────────────────────────────────────────────────┐
    │ Page                 │ Contents                                       │
    ├──────────────────────┼────────────────────────────────────────────────┤
    │ render_directory     │ parent link, upload form, entry table with     │
    │                      │ delete / rename forms, image lightbox          │
    │ render_text_viewer   │ escaped file contents, encoding selector       │
    │ render_video_viewer  │ <video> player, download link                  │
    └──────────────────────┴────────────────────────────────────────────────┘

=============================================================================
ESCAPING
=============================================================================

Names come straight from disk and can contain anything a filesystem
allows, so two escapes are applied:

    href / action / src     urllib.parse.quote    "/My Docs" → "/My%20Docs"
    text and attributes     html.escape           "<b>"      → "&lt;b&gt;"

Values inside inline JavaScript are JSON-encoded first, then HTML-escaped
for the surrounding attribute.

=============================================================================
"""

import html
import json
from typing import Iterable
from urllib.parse import quote

from ..fs.listing import DirectoryEntry, EntryKind


# =============================================================================
# TEXT ENCODINGS
# =============================================================================
#
# Labels shown in the viewer's <select>, mapped to Python codec names.
# "ASCII-8BIT" means raw bytes; latin-1 maps every byte to one character.
#
TEXT_ENCODINGS = {
    "UTF-8": "utf-8",
    "Shift_JIS": "shift_jis",
    "EUC-JP": "euc_jp",
    "ISO-2022-JP": "iso2022_jp",
    "Windows-31J": "cp932",
    "ASCII-8BIT": "latin-1",
}

DEFAULT_ENCODING = "UTF-8"


def normalize_encoding(label: str) -> str:
    """Return `label` if it is offered in the selector, else UTF-8."""
    return label if label in TEXT_ENCODINGS else DEFAULT_ENCODING


def decode_text(data: bytes, label: str) -> str:
    """Decode `data` with the codec behind `label`, replacing bad bytes."""
    codec = TEXT_ENCODINGS[normalize_encoding(label)]
    return data.decode(codec, errors="replace")


def url_for(web_path: str, safe: str = "/") -> str:
    """
    Percent-encode a web path for use in href/src, keeping "/".

    Names that are not valid UTF-8 arrive from os.scandir with their bad
    bytes surrogate-escaped; those bytes are encoded as they are on disk.
    """
    return quote(web_path, safe=safe, errors="surrogateescape")


def parent_of(web_path: str) -> str:
    parent = web_path.rstrip("/").rsplit("/", 1)[0]
    return parent or "/"


def basename_of(web_path: str) -> str:
    """Last segment of a web path."""
    return web_path.rstrip("/").rsplit("/", 1)[-1]


def _attr(value: str) -> str:
    return html.escape(value, quote=True)


def _js_call(function: str, *args: str) -> str:
    """An onclick value calling `function` with string arguments."""
    rendered = ", ".join(json.dumps(arg) for arg in args)
    return _attr(f"{function}({rendered})")


# =============================================================================
# DIRECTORY PAGE
# =============================================================================

_DIRECTORY_STYLE = """
    body { font-family: Arial, sans-serif; margin: 20px; }
    table { border-collapse: collapse; width: 100%; }
    th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
    th { background-color: #f2f2f2; }
    .upload-form { margin: 20px 0; padding: 10px; background: #f9f9f9; }
    .actions { white-space: nowrap; }
    a { text-decoration: none; color: #0066cc; }
    a:hover { text-decoration: underline; }
    .rename-form { display: inline; }
    .rename-form input[type="text"] { width: 120px; }
    .parent-link { margin: 10px 0; }
    .image-file { color: #0066cc; cursor: pointer; }
    .image-file:hover { opacity: 0.8; text-decoration: underline; }
    #imageModal { display: none; position: fixed; z-index: 1000; left: 0; top: 0;
                  width: 100%; height: 100%; overflow: auto;
                  background-color: rgba(0, 0, 0, 0.9); }
    #imageModal .close { position: absolute; top: 15px; right: 35px; color: #f1f1f1;
                         font-size: 40px; font-weight: bold; cursor: pointer; }
    #modalImage { margin: 50px auto 0; display: block; width: 80%; max-width: 700px; }
    #caption { margin: auto; width: 80%; max-width: 700px; text-align: center;
               color: #ccc; padding: 10px 0; }
"""

_DIRECTORY_SCRIPT = """
    function openImageModal(src, name) {
      document.getElementById('imageModal').style.display = 'block';
      document.getElementById('modalImage').src = src;
      document.getElementById('caption').textContent = name;
    }

    function closeImageModal() {
      document.getElementById('imageModal').style.display = 'none';
    }
"""


def _name_cell(entry: DirectoryEntry) -> str:
    href = url_for(entry.web_path)
    name = html.escape(entry.name)

    if entry.kind is EntryKind.DIRECTORY:
        return f'<a href="{_attr(href)}">📁 {name}/</a>'
    if entry.kind is EntryKind.IMAGE:
        onclick = _js_call("openImageModal", href, entry.name)
        return f'<span class="image-file" onclick="{onclick}">{name} 📷</span>'
    if entry.kind is EntryKind.VIDEO:
        return f'<a href="{_attr(href)}?view=video">{name} 🎬</a>'
    if entry.kind is EntryKind.TEXT:
        return f'<a href="{_attr(href)}?view=text">{name} 📄</a>'
    return f'<a href="{_attr(href)}">{name}</a>'


def _entry_row(entry: DirectoryEntry) -> str:
    target = url_for(entry.web_path, safe="")
    delete_action = f"?action=delete&path={target}"
    rename_action = f"?action=rename&path={target}&old_name={url_for(entry.name, safe='')}"
    confirm = _attr(f"return confirm({json.dumps('Delete ' + entry.name + '?')})")

    return f"""
      <tr>
        <td>{_name_cell(entry)}</td>
        <td>{entry.display_type}</td>
        <td>{entry.display_size}</td>
        <td>{entry.display_modified}</td>
        <td class="actions">
          <form method="POST" style="display:inline;" action="{_attr(delete_action)}">
            <input type="submit" value="Delete" onclick="{confirm}">
          </form>
          <form method="POST" class="rename-form" action="{_attr(rename_action)}">
            <input type="text" name="new_name" value="{_attr(entry.name)}">
            <input type="submit" value="Rename">
          </form>
        </td>
      </tr>"""


def render_directory(web_path: str, entries: Iterable[DirectoryEntry]) -> str:
    """
    Render the listing page for the directory at `web_path`.

    Args:
        web_path: Decoded web path of the directory ("/" for the root).
        entries: Rows, already sorted.
    """
    current = html.escape(web_path)

    parent_link = ""
    if web_path != "/":
        parent_href = _attr(url_for(parent_of(web_path)))
        parent_link = f'<div class="parent-link"><a href="{parent_href}">← Parent directory</a></div>'

    upload_action = _attr(f"?action=upload&path={url_for(web_path, safe='')}")
    rows = "".join(_entry_row(entry) for entry in entries)

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>File Manager - {current}</title>
  <style>{_DIRECTORY_STYLE}  </style>
  <script>{_DIRECTORY_SCRIPT}  </script>
</head>
<body>
  <h1>File Manager</h1>
  <p>Current directory: {current}</p>
  {parent_link}

  <div class="upload-form">
    <h3>Upload File</h3>
    <form method="POST" enctype="multipart/form-data" action="{upload_action}">
      <input type="file" name="file" required>
      <input type="submit" value="Upload">
    </form>
  </div>

  <div id="imageModal">
    <span class="close" onclick="closeImageModal()">&times;</span>
    <img id="modalImage" alt="">
    <div id="caption"></div>
  </div>

  <table>
    <tr>
      <th>Name</th>
      <th>Type</th>
      <th>Size</th>
      <th>Modified</th>
      <th>Actions</th>
    </tr>{rows}
  </table>
</body>
</html>
"""


# =============================================================================
# TEXT VIEWER
# =============================================================================

def render_text_viewer(web_path: str, content: str, encoding: str) -> str:
    """
    Render a text file with an encoding selector.

    Choosing another encoding reloads the page with ?encoding=<label>,
    keeping the other query parameters.
    """
    encoding = normalize_encoding(encoding)
    name = html.escape(basename_of(web_path))
    back = _attr(url_for(parent_of(web_path)))

    options = "".join(
        f'\n        <option value="{_attr(label)}"{" selected" if label == encoding else ""}>'
        f"{html.escape(label)}</option>"
        for label in TEXT_ENCODINGS
    )

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>Text Viewer - {name}</title>
  <style>
    body {{ font-family: monospace; margin: 20px; background: #f5f5f5; }}
    .header {{ background: white; padding: 15px; border-radius: 5px; margin-bottom: 10px; }}
    .content {{ background: white; padding: 20px; border-radius: 5px;
                white-space: pre-wrap; word-wrap: break-word; }}
    .encoding-selector {{ margin: 10px 0; }}
    select {{ padding: 5px; }}
    .back-button {{ text-decoration: none; color: #0066cc; }}
    .back-button:hover {{ text-decoration: underline; }}
  </style>
</head>
<body>
  <div class="header">
    <h2>📄 {name}</h2>
    <a href="{back}" class="back-button">← Back to directory</a>
    <div class="encoding-selector">
      <label for="encoding">Encoding: </label>
      <select id="encoding" onchange="changeEncoding()">{options}
      </select>
    </div>
  </div>

  <div class="content">{html.escape(content)}</div>

  <script>
    function changeEncoding() {{
      const encoding = document.getElementById('encoding').value;
      const url = new URL(window.location);
      url.searchParams.set('encoding', encoding);
      window.location.href = url.toString();
    }}
  </script>
</body>
</html>
"""


# =============================================================================
# VIDEO VIEWER
# =============================================================================

def render_video_viewer(web_path: str, mime_type: str) -> str:
    """Render an HTML5 player whose source is the file's own URL."""
    name = html.escape(basename_of(web_path))
    src = _attr(url_for(web_path))
    back = _attr(url_for(parent_of(web_path)))

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>Video Viewer - {name}</title>
  <style>
    body {{ font-family: Arial, sans-serif; margin: 0; padding: 20px;
            background: #000; color: white; text-align: center; }}
    .header {{ background: rgba(255, 255, 255, 0.1); padding: 15px;
               border-radius: 5px; margin-bottom: 20px; }}
    video {{ max-width: 100%; max-height: 80vh; border-radius: 8px; }}
    .back-button {{ text-decoration: none; color: #4CAF50; font-weight: bold; }}
    .download-button {{ display: inline-block; margin-top: 20px; padding: 10px 20px;
                        background: #2196F3; color: white; text-decoration: none;
                        border-radius: 5px; font-weight: bold; }}
    .info {{ margin-top: 20px; color: #ccc; font-size: 14px; }}
  </style>
</head>
<body>
  <div class="header">
    <h2>🎬 {name}</h2>
    <a href="{back}" class="back-button">← Back to directory</a>
  </div>

  <div class="video-container">
    <video controls preload="metadata">
      <source src="{src}" type="{_attr(mime_type)}">
      <p>Your browser does not support HTML5 video.</p>
    </video>
  </div>

  <div class="info">
    <a href="{src}" download="{_attr(basename_of(web_path))}" class="download-button">📥 Download</a>
    <p>If the video does not play, download it instead.</p>
  </div>

  <script>
    document.querySelector('video').addEventListener('error', function () {{
      document.querySelector('.info p').textContent =
        'The video failed to load. The format may not be supported by this browser.';
    }});
  </script>
</body>
</html>
"""

