"""
Configuration constants for the Volume Reslicing Engine.
All tolerances, defaults and fallback values are centralized here.
"""

# ==========================================
# Numerical Tolerances
# ==========================================
EPSILON = 1e-7                    # Generic geometric tolerance (world units)
DETERMINANT_TOLERANCE = 1e-12     # |det| below this -> matrix treated as singular
ORTHONORMAL_TOLERANCE = 1e-5      # Max deviation of R^T R from identity for rigid inversion

# ==========================================
# Textures
# ==========================================
TEXTURE_CHANNELS = 4              # RGBA8
OPAQUE_ALPHA = 255

# ==========================================
# Color Table
# ==========================================

# [index, r, g, b, a] substituted when a label is missing from the table
COLORTABLE_FALLBACK = (0, 1.0, 0.1, 0.2, 1.0)

# ==========================================
# Axis-Aligned Reslicing
# ==========================================

# Slice frame colours (UI cue only), keyed by the through-plane world axis
SLICE_COLOR_AXIAL = (1.0, 0.0, 0.0)       # normal along z
SLICE_COLOR_CORONAL = (0.0, 1.0, 0.0)     # normal along y
SLICE_COLOR_SAGITTAL = (1.0, 1.0, 0.0)    # normal along x

RESLICE_FULL = True               # Reslice all three axes (False -> axis 0 only)
RESLICE_MAX_WORKERS = 1           # >1 reslices the axes in a thread pool

# ==========================================
# Oblique Resampling
# ==========================================
OBLIQUE_PIXEL_SIZE = 1.0          # Physical units per output pixel
OBLIQUE_DEFAULT_NORMAL = (0.0, 0.0, 1.0)

# ==========================================
# XY Viewport (XY -> Slice transform)
# ==========================================
VIEWPORT_FOV = (250.0, 250.0, 1.0)
VIEWPORT_DIMENSIONS = (256, 256, 1)
VIEWPORT_XYZ_ORIGIN = (0.0, 0.0, 0.0)

# ==========================================
# Loader Settings
# ==========================================
LOADER_MAX_WORKERS = 4            # Number of parallel threads for DICOM file reading
DUMMY_VOLUME_SIZE = 64            # Default edge length of the synthetic phantom

# ==========================================
# Export Settings
# ==========================================
EXPORT_FORMATS = ("npy",)         # "npy" | "tiff" | "vtk"
DEFAULT_OUTPUT_DIR = "reslice_output"
