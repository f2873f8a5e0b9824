#!/usr/bin/env python3
"""
email_auth_check.py

This script serves as the entry point for running the email authentication
analysis. It reads one RFC 5322 message and reports the SPF, DKIM, ARC and
aligned-from outcomes found in its headers, the DKIM key records published in
DNS, and a 0-100 score per mechanism.

Usage:
    python email_auth_check.py message.eml
"""

from email_auth_check.cli import main

if __name__ == "__main__":
    main()
