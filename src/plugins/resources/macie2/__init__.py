"""Amazon Macie resources."""

from plugins.resources.macie2.custom_data_identifier import CustomDataIdentifierPlugin

__all__ = ["CustomDataIdentifierPlugin"]
