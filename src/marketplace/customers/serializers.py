"""Customer DRF serializers."""

from __future__ import annotations

from rest_framework import serializers

from marketplace.core.verification import CODE_LENGTH


class ConfirmPhoneSerializer(serializers.Serializer):
    code = serializers.RegexField(
        rf"^\d{{{CODE_LENGTH}}}$",
        error_messages={"invalid": f"The code must be {CODE_LENGTH} digits."},
    )
