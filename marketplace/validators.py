"""
Custom validators for marketplace models.
"""

import re
from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone


def validate_contact_number(value):
    """
    Validate contact number format.

    Accepts international formats with optional country codes, spaces, dashes, and parentheses.
    Requires at least 10 digits.

    Valid formats:
    - +27-11-555-0100
    - +27 11 555 0100
    - (011) 555-0100
    - 0115550100

    Args:
        value: Contact number string to validate

    Raises:
        ValidationError: If contact number format is invalid
    """
    if not value:  # Empty string is allowed (optional field)
        return

    if not re.match(r'^[\d\s\-\+\(\)]+$', value):
        raise ValidationError(
            'Contact number can only contain digits, spaces, dashes, parentheses, and plus sign.',
            code='invalid_contact_chars'
        )

    digits = re.sub(r'\D', '', value)

    if len(digits) < 10:
        raise ValidationError(
            'Contact number must contain at least 10 digits.',
            code='contact_too_short'
        )

    if len(set(digits)) == 1:
        raise ValidationError(
            'Contact number cannot be all the same digit.',
            code='invalid_contact_pattern'
        )


def validate_pdf_document(document):
    """
    Validate an uploaded listing document.

    Checks:
    - File size (ATTACHMENT_MAX_BYTES, 25MB by default)
    - File extension (.pdf)
    - MIME type (application/pdf) when the upload carries one

    Args:
        document: UploadedFile or FieldFile object

    Raises:
        ValidationError: If the document is invalid
    """
    if not document:
        return

    max_size = getattr(settings, 'ATTACHMENT_MAX_BYTES', 25 * 1024 * 1024)
    if document.size > max_size:
        raise ValidationError(
            f'Document size cannot exceed {max_size // (1024 * 1024)}MB. '
            f'Current size: {document.size / (1024 * 1024):.2f}MB',
            code='document_too_large'
        )

    if not document.name.lower().endswith('.pdf'):
        raise ValidationError(
            'Only PDF files are allowed.',
            code='invalid_document_format'
        )

    content_type = getattr(document, 'content_type', None)
    if content_type and content_type != 'application/pdf':
        raise ValidationError(
            f'Invalid document content type: {content_type}. Only PDF files are allowed.',
            code='invalid_content_type'
        )


def validate_machine_year(value):
    """Manufacturing year must fall between 1950 and next year."""
    max_year = timezone.now().year + 1
    if value is None:
        return
    if value < 1950 or value > max_year:
        raise ValidationError(
            f'Year must be between 1950 and {max_year}.',
            code='invalid_year'
        )
