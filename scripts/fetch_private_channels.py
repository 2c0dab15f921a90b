#!/usr/bin/env python3
"""Add private channels to a Slack export archive."""
from exportkit.connectors.slack.private_channels import main

if __name__ == "__main__":
    main()
