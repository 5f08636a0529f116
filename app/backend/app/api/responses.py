"""Response helpers shared by route modules."""

from fastapi.responses import Response

from app.services.common import ExportFilePayload


def attachment_response(exported: ExportFilePayload) -> Response:
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )
