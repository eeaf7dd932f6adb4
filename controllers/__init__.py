#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Controller layer with service-oriented architecture
"""

from .base_controller import BaseController

__all__ = ['BaseController']
