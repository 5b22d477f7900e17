"""
PDF Editor - open files, annotate them and save the result.
"""

import logging
from pathlib import Path

import flet as ft

from flet_pdf_editor import (
    EditorSession,
    NoticeLevel,
    PdfEditorView,
    TextSettings,
    Tool,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
for name in ("flet", "flet_core", "flet_runtime"):
    logging.getLogger(name).setLevel(logging.WARNING)

COLORS = {
    "bg": "#000000",
    "surface": "#0a0a0a",
    "border": "#262626",
    "text": "#ededed",
    "text_muted": "#737373",
}

NOTICE_COLORS = {
    NoticeLevel.INFO: "#3B82F6",
    NoticeLevel.SUCCESS: "#10B981",
    NoticeLevel.WARNING: "#F59E0B",
    NoticeLevel.ERROR: "#EF4444",
}

TOOLS = [
    (Tool.SELECT, ft.Icons.NEAR_ME, "Select"),
    (Tool.WHITEOUT, ft.Icons.CROP_SQUARE, "Whiteout"),
    (Tool.TEXT, ft.Icons.TEXT_FIELDS, "Text"),
    (Tool.SIGNATURE, ft.Icons.DRAW, "Signature"),
    (Tool.PARAF, ft.Icons.GESTURE, "Paraf (every page)"),
]


async def main(page: ft.Page):
    page.title = "PDF Editor"
    page.padding = 0
    page.bgcolor = COLORS["bg"]
    page.theme_mode = ft.ThemeMode.DARK

    session = EditorSession()
    view = PdfEditorView(session)
    output: dict = {}

    def show_notice(notice):
        page.open(
            ft.SnackBar(
                ft.Text(notice.message, color=COLORS["text"]),
                bgcolor=NOTICE_COLORS[notice.level],
            )
        )

    session.on_notice = show_notice

    # Text dialog

    text_field = ft.TextField(label="Text", multiline=True, autofocus=True)
    size_field = ft.TextField(label="Size", value="16", width=80)

    def confirm_text(e):
        try:
            size = float(size_field.value or 16)
        except ValueError:
            size = 16
        session.confirm_text(TextSettings(text=text_field.value or "", font_size=size))
        page.close(text_dialog)

    text_dialog = ft.AlertDialog(
        title=ft.Text("Add text"),
        content=ft.Column([text_field, size_field], tight=True),
        actions=[ft.TextButton("Add", on_click=confirm_text)],
    )

    def on_text_requested(page_index, x, y):
        text_field.value = ""
        page.open(text_dialog)

    session.on_text_requested = on_text_requested

    # File pickers

    async def on_files_picked(e: ft.FilePickerResultEvent):
        if e.files:
            await session.add_files([f.path for f in e.files])

    async def on_signature_picked(e: ft.FilePickerResultEvent):
        if e.files:
            await session.set_signature_image(Path(e.files[0].path).read_bytes())

    def on_save_picked(e: ft.FilePickerResultEvent):
        if e.path and output.get("data"):
            Path(e.path).write_bytes(output.pop("data"))

    open_picker = ft.FilePicker(on_result=on_files_picked)
    signature_picker = ft.FilePicker(on_result=on_signature_picked)
    save_picker = ft.FilePicker(on_result=on_save_picked)
    page.overlay.extend([open_picker, signature_picker, save_picker])

    async def on_save(e):
        data = await session.build_output()
        if data is not None:
            output["data"] = data
            save_picker.save_file(file_name="edited.pdf", allowed_extensions=["pdf"])

    # Protect dialog

    password_field = ft.TextField(label="Password", password=True)
    confirm_field = ft.TextField(label="Confirm password", password=True)

    async def confirm_protect(e):
        page.close(protect_dialog)
        data = await session.build_protected_output(
            password_field.value or "", confirm_field.value or ""
        )
        if data is not None:
            output["data"] = data
            save_picker.save_file(file_name="protected.pdf", allowed_extensions=["pdf"])

    protect_dialog = ft.AlertDialog(
        title=ft.Text("Protect with password"),
        content=ft.Column([password_field, confirm_field], tight=True),
        actions=[ft.TextButton("Protect", on_click=confirm_protect)],
    )

    def on_protect(e):
        password_field.value = ""
        confirm_field.value = ""
        page.open(protect_dialog)

    # Toolbar

    def tool_button(tool, icon, tooltip):
        def on_click(e):
            session.set_tool(tool)
            if tool in (Tool.SIGNATURE, Tool.PARAF) and session.signature_image_id is None:
                signature_picker.pick_files(
                    allowed_extensions=["png", "jpg", "jpeg", "webp"]
                )

        return ft.IconButton(icon=icon, tooltip=tooltip, on_click=on_click)

    def current_page() -> int:
        return max(0, session.document.selected_page)

    async def undo_pages(e):
        await session.undo_pages()

    async def redo_pages(e):
        await session.redo_pages()

    toolbar = ft.Container(
        content=ft.Row(
            [
                ft.IconButton(
                    icon=ft.Icons.FOLDER_OPEN,
                    tooltip="Open",
                    on_click=lambda e: open_picker.pick_files(
                        allow_multiple=True,
                        allowed_extensions=["pdf", "png", "jpg", "jpeg", "webp", "gif"],
                    ),
                ),
                ft.VerticalDivider(width=1, color=COLORS["border"]),
                *[tool_button(tool, icon, tip) for tool, icon, tip in TOOLS],
                ft.VerticalDivider(width=1, color=COLORS["border"]),
                ft.IconButton(
                    icon=ft.Icons.CHECK,
                    tooltip="Confirm signature",
                    on_click=lambda e: session.confirm_signature(),
                ),
                ft.IconButton(
                    icon=ft.Icons.DELETE_OUTLINE,
                    tooltip="Delete annotation",
                    on_click=lambda e: session.delete_annotation(),
                ),
                ft.IconButton(
                    icon=ft.Icons.BRANDING_WATERMARK,
                    tooltip="Watermark",
                    on_click=lambda e: session.apply_watermark(apply_to="all"),
                ),
                ft.IconButton(
                    icon=ft.Icons.FORMAT_LIST_NUMBERED,
                    tooltip="Page numbers",
                    on_click=lambda e: session.apply_page_numbers(),
                ),
                ft.IconButton(icon=ft.Icons.UNDO, tooltip="Undo", on_click=lambda e: session.undo()),
                ft.IconButton(icon=ft.Icons.REDO, tooltip="Redo", on_click=lambda e: session.redo()),
                ft.VerticalDivider(width=1, color=COLORS["border"]),
                ft.IconButton(
                    icon=ft.Icons.ROTATE_RIGHT,
                    tooltip="Rotate page",
                    on_click=lambda e: session.rotate_page(current_page()),
                ),
                ft.IconButton(
                    icon=ft.Icons.DELETE_FOREVER,
                    tooltip="Delete page",
                    on_click=lambda e: session.delete_page(current_page()),
                ),
                ft.IconButton(icon=ft.Icons.UNDO_OUTLINED, tooltip="Undo page change", on_click=undo_pages),
                ft.IconButton(icon=ft.Icons.REDO_OUTLINED, tooltip="Redo page change", on_click=redo_pages),
                ft.VerticalDivider(width=1, color=COLORS["border"]),
                ft.IconButton(icon=ft.Icons.ZOOM_OUT, on_click=lambda e: session.zoom_out()),
                ft.IconButton(icon=ft.Icons.ZOOM_IN, on_click=lambda e: session.zoom_in()),
                ft.IconButton(icon=ft.Icons.SAVE_ALT, tooltip="Save", on_click=on_save),
                ft.IconButton(icon=ft.Icons.LOCK_OUTLINE, tooltip="Save with password", on_click=on_protect),
            ],
            spacing=2,
            scroll=ft.ScrollMode.AUTO,
        ),
        bgcolor=COLORS["surface"],
        padding=6,
    )

    page.add(
        ft.Column(
            [
                toolbar,
                ft.Container(content=view.control, expand=True, padding=16),
            ],
            expand=True,
        )
    )


if __name__ == "__main__":
    ft.app(target=main)
