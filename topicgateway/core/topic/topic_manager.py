"""
Topic manager mapping topic names to their on-disk logs.

Topics are opaque strings, so each one is stored under a percent-encoded
directory name that cannot escape the base directory. Names whose encoding
would be too long for the filesystem go under a SHA-256 directory instead, with
the real name kept in a file beside the segments.
"""

import hashlib
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote

from topicgateway.core.log.log import Log
from topicgateway.utils.logging import get_logger

logger = get_logger(__name__)

TOPIC_DIR_PREFIX = "topic-"
HASHED_TOPIC_DIR_PREFIX = "topic~"
TOPIC_NAME_FILE = "topic.name"

# Common filesystems cap a path component at 255 bytes.
MAX_TOPIC_DIR_NAME = 200


class TopicManager:
    """
    Manages topics and their underlying logs.
    
    Responsibilities:
    - Map topic names to directories
    - Open logs lazily and keep one Log per topic
    - Create a topic only when something is appended to it
    """
    
    def __init__(self, base_dir: Path, log_config: Optional[Dict[str, Any]] = None):
        """
        Initialize topic manager.
        
        Args:
            base_dir: Base directory for topic data
            log_config: Keyword arguments passed to every Log
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        
        self.log_config = dict(log_config or {})
        
        self._logs: Dict[str, Log] = {}
        self._lock = threading.RLock()
        
        logger.info(
            "Initialized topic manager",
            base_dir=str(self.base_dir),
            existing_topics=len(self.list_topics()),
        )
    
    def topic_dir(self, topic: str) -> Path:
        """
        Get the directory holding a topic's segments.
        
        Args:
            topic: Topic name
        
        Returns:
            Path to topic directory
        """
        name = f"{TOPIC_DIR_PREFIX}{quote(topic, safe='')}"
        if len(name) > MAX_TOPIC_DIR_NAME:
            digest = hashlib.sha256(topic.encode("utf-8")).hexdigest()
            name = f"{HASHED_TOPIC_DIR_PREFIX}{digest}"
        return self.base_dir / name
    
    def get_log(self, topic: str) -> Optional[Log]:
        """
        Get the log for an existing topic without creating it.
        
        Args:
            topic: Topic name
        
        Returns:
            Log instance, or None if the topic has never been written
        """
        with self._lock:
            log = self._logs.get(topic)
            if log is not None:
                return log
            
            if not self.topic_dir(topic).is_dir():
                return None
            
            return self._open_log(topic)
    
    def get_or_create_log(self, topic: str) -> Log:
        """
        Get the log for a topic, creating the topic if needed.
        
        Args:
            topic: Topic name
        
        Returns:
            Log instance
        """
        with self._lock:
            log = self._logs.get(topic)
            if log is None:
                log = self._open_log(topic)
            return log
    
    def _open_log(self, topic: str) -> Log:
        directory = self.topic_dir(topic)
        created = not directory.exists()
        
        log = Log(directory=directory, **self.log_config)
        if directory.name.startswith(HASHED_TOPIC_DIR_PREFIX):
            name_file = directory / TOPIC_NAME_FILE
            if not name_file.exists():
                name_file.write_text(topic, encoding="utf-8")
        self._logs[topic] = log
        
        logger.info(
            "Created topic" if created else "Opened topic",
            topic=topic,
            directory=str(directory),
        )
        
        return log
    
    def list_topics(self) -> List[str]:
        """
        List topics present on disk.
        
        Returns:
            Sorted topic names
        """
        topics = []
        for path in self.base_dir.iterdir():
            if not path.is_dir():
                continue
            if path.name.startswith(TOPIC_DIR_PREFIX):
                topics.append(unquote(path.name[len(TOPIC_DIR_PREFIX):]))
            elif path.name.startswith(HASHED_TOPIC_DIR_PREFIX):
                name_file = path / TOPIC_NAME_FILE
                if name_file.exists():
                    topics.append(name_file.read_text(encoding="utf-8"))
        return sorted(topics)
    
    def close_all(self) -> None:
        """Close all open topic logs."""
        with self._lock:
            for log in self._logs.values():
                log.close()
            
            count = len(self._logs)
            self._logs.clear()
        
        logger.info("Closed all topics", topics=count)
