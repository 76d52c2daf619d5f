"""
Media Downloader

Description: Crawls a website with a headless browser, downloads its images and videos, and removes duplicates
Author: Eric Hiss (GitHub: EricRollei)
Contact: eric@historic.camera, eric@rollei.us
License: Dual License (Non-Commercial and Commercial Use)
Copyright (c) 2025 Eric Hiss. All rights reserved.

Dual License:
1. Non-Commercial Use: This software is licensed under the terms of the
   Creative Commons Attribution-NonCommercial 4.0 International License.
   To view a copy of this license, visit http://creativecommons.org/licenses/by-nc/4.0/

2. Commercial Use: For commercial use, a separate license is required.
   Please contact Eric Hiss at eric@historic.camera or eric@rollei.us for licensing options.

Dependencies:
This code depends on several third-party libraries, each with its own license.

Third-party code:
- Uses Playwright (Apache 2.0): https://github.com/microsoft/playwright
- Uses Requests (Apache 2.0): https://github.com/psf/requests
- Uses Pillow (HPND): https://github.com/python-pillow/Pillow
- Uses ImageHash (BSD 2-Clause): https://github.com/JohannesBuchner/imagehash
"""

__version__ = "2.0.0"
