#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
zerodiv_shims/__main__.py
=========================

Entry point for ``python -m zerodiv_shims``.

Usage
-----
    cppcheck --dump main.c
    python -m zerodiv_shims main.c.dump [--output json|gcc|summary]
                                        [--call-policy any|all] [--no-modulo]
                                        [-j N] [-v]

Same as the ``zerodiv`` console script.
"""

from zerodiv_shims.checkers import _main

if __name__ == "__main__":
    _main()
