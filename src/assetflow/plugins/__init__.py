from .files import dest, filesize, rename_ext
from .images import imagemin, imagemin_png
from .lint import jshint, lint_reporter
from .scripts import concat, uglify
from .styles import autoprefixer, sass

__all__ = [
    "dest",
    "filesize",
    "rename_ext",
    "imagemin",
    "imagemin_png",
    "jshint",
    "lint_reporter",
    "concat",
    "uglify",
    "autoprefixer",
    "sass",
]
