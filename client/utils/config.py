#!/usr/bin/env python
# Configuration for the battery client
import os
import json
import logging
import argparse

logger = logging.getLogger(__name__)


class Config:
    """Configuration management for the battery client"""

    # Default values
    DEFAULT_API_URL = "http://localhost:8000/api"
    DEFAULT_RESYNC_INTERVAL = 30.0
    DEFAULT_POST_USAGE_DELAY = 1.0

    def __init__(self, config_file: str = "~/.battery/config.json"):
        self.api_url = self.DEFAULT_API_URL
        self.resync_interval = self.DEFAULT_RESYNC_INTERVAL
        self.post_usage_delay = self.DEFAULT_POST_USAGE_DELAY
        self.access_token = None
        self.config_file = os.path.expanduser(config_file)

    def load_config(self) -> "Config":
        """Load configuration from file if it exists"""
        if not os.path.exists(self.config_file):
            return self
        try:
            with open(self.config_file, 'r') as f:
                config_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Error loading config {self.config_file}: {e}")
            return self

        self.api_url = config_data.get('api_url', self.api_url)
        self.resync_interval = float(config_data.get('resync_interval', self.resync_interval))
        self.post_usage_delay = float(config_data.get('post_usage_delay', self.post_usage_delay))
        self.access_token = config_data.get('access_token', self.access_token)
        return self

    def parse_args(self, argv=None):
        """Parse command line arguments over the loaded values"""
        parser = argparse.ArgumentParser(description='Battery client')
        parser.add_argument('--api-url', help='API URL', default=self.api_url)
        parser.add_argument('--token', help='Bearer token for the API', default=self.access_token)
        parser.add_argument('--resync-interval', type=float, default=self.resync_interval,
                            help='Seconds between background balance refreshes')

        args = parser.parse_args(argv)

        self.api_url = args.api_url
        self.access_token = args.token
        self.resync_interval = args.resync_interval

        return args
