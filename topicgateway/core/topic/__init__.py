"""Topic-to-log mapping for the segment-file engine."""

from topicgateway.core.topic.topic_manager import TopicManager

__all__ = ["TopicManager"]
