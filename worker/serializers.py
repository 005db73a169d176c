from rest_framework import serializers


class MediaObjectSerializer(serializers.Serializer):
    media_content_url = serializers.CharField()
    media_title = serializers.CharField(trim_whitespace=False)


class TranscodeJobSerializer(serializers.Serializer):
    """
    Shape of an input queue message:
      {"type": "rss",
       "object": {"media_content_url": "...", "media_title": "..."},
       "handbrake_presets": ["480p", "720p"]}
    Duplicate presets are kept; each one is transcoded again.
    """
    type = serializers.CharField()
    object = MediaObjectSerializer()
    handbrake_presets = serializers.ListField(
        child=serializers.CharField(trim_whitespace=False),
        allow_empty=False,
    )


class QueueStatusSerializer(serializers.Serializer):
    queue = serializers.CharField()
    message_count = serializers.IntegerField(min_value=0)
    consumer_count = serializers.IntegerField(min_value=0)
