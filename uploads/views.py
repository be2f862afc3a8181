from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.errors import json_object

from .broker import UploadBroker


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def presign_uploads(request):
    """
    Presigned PUT URLs for application attachments

    Expected payload:
    {
        "files": [{"fileName": "cv.pdf", "mimeType": "application/pdf", "sizeBytes": 12345}]
    }
    """
    uploads = UploadBroker().presign_batch(request.user, json_object(request.data).get('files'))
    return Response({'success': True, 'uploads': uploads})
