"""
Slice Volume Renderer

Command line entry point: loads a DICOM series, renders one frame and
writes it as an image.
"""

import argparse
import sys
import logging

from config import DEFAULT_VIEWER
from core.errors import VolumeRenderError
from loaders.series_loader import DicomSeriesLoader
from rendering.atlas import pack
from rendering.raycaster import RayIntegrator
from rendering.slice_renderer import SliceRenderer
from rendering.state import Camera, Capabilities, TransferFunction


def setup_logging(verbose: bool = False):
    """Configure logging to stdout."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Render a DICOM slice series as a volume or a single slice."
    )
    parser.add_argument("source", help="Directory or file(s) of the series")
    parser.add_argument("-o", "--output", default="frame.png", help="Output image path")
    parser.add_argument("--width", type=int, default=512)
    parser.add_argument("--height", type=int, default=512)
    parser.add_argument("--rotation-x", type=float, default=0.0, help="Radians")
    parser.add_argument("--rotation-y", type=float, default=0.0, help="Radians")
    parser.add_argument("--zoom", type=float, default=1.0)
    parser.add_argument("--threshold", type=float, default=DEFAULT_VIEWER.threshold)
    parser.add_argument("--opacity", type=float, default=DEFAULT_VIEWER.opacity)
    parser.add_argument("--window-level", type=float, default=DEFAULT_VIEWER.window_level)
    parser.add_argument("--window-width", type=float, default=DEFAULT_VIEWER.window_width)
    parser.add_argument("--no-lighting", action="store_true", help="Skip gradient shading")
    parser.add_argument("--native", action="store_true",
                        help="Sample the 3D array directly instead of atlas tiles")
    parser.add_argument("--slice", type=float, default=None, metavar="POSITION",
                        help="Render the slice at POSITION in [0, 1] instead of the volume")
    parser.add_argument("--gpu", action="store_true", help="Use cupy if available")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    # Imported late: QtGui is only needed for writing the image
    from exporters.image import save_frame

    try:
        volume = DicomSeriesLoader().load(args.source)
    except (VolumeRenderError, OSError) as e:
        logging.error(f"Could not load series: {e}")
        return 1

    atlas = pack(volume)
    transfer = TransferFunction(
        threshold=args.threshold,
        opacity=args.opacity,
        window_level=args.window_level,
        window_width=args.window_width,
    )

    if args.slice is not None:
        frame = SliceRenderer().render(atlas, args.slice, transfer, args.width, args.height)
    else:
        capabilities = Capabilities(
            supports_native_volume_addressing=args.native,
            uses_lighting=not args.no_lighting,
        )
        integrator = RayIntegrator(capabilities=capabilities, use_gpu=args.gpu)
        camera = Camera(rotation_x=args.rotation_x, rotation_y=args.rotation_y, zoom=args.zoom)
        frame = integrator.render_frame(atlas, camera, transfer, args.width, args.height)
        logging.info(f"Rendered in {integrator.last_timing['total']:.2f}s")

    try:
        path = save_frame(frame, args.output)
    except OSError as e:
        logging.error(f"Could not save frame: {e}")
        return 1

    logging.info(f"Saved {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
