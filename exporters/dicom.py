"""
DICOM Exporter

Writes volumes as single-frame DICOM series (explicit VR little endian,
uncompressed), the same layout the series loader reads back.
"""

from copy import deepcopy
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple
import logging

import numpy as np
import pydicom
from pydicom.dataset import Dataset, FileDataset, FileMetaDataset
from pydicom.uid import (
    ExplicitVRLittleEndian,
    SecondaryCaptureImageStorage,
    generate_uid,
)

from rendering.volume import Volume


class DICOMExporter:
    """
    Exports volumes as DICOM series.

    Series level attributes are built once per export; every slice is a
    copy of that template with its own SOP instance, position and pixels.
    Instance numbers start at 1.
    """

    def __init__(
        self,
        patient_name: str = "Anonymous^Patient",
        patient_id: str = "VOLUME001",
        series_description: str = "Exported Volume",
        bits_allocated: int = 8
    ):
        """
        Args:
            patient_name: Family^Given
            patient_id: Patient ID
            series_description: Free text series label
            bits_allocated: Stored sample size, 8 or 16
        """
        if bits_allocated not in (8, 16):
            raise ValueError(f"bits_allocated must be 8 or 16, got {bits_allocated}")

        self.patient_name = patient_name
        self.patient_id = patient_id
        self.series_description = series_description
        self.bits_allocated = bits_allocated
        self.reset_uids()

    def reset_uids(self) -> None:
        """Start a new study and series; later exports get fresh UIDs."""
        self.study_instance_uid = generate_uid()
        self.series_instance_uid = generate_uid()
        self.study_date = datetime.now().strftime("%Y%m%d")

    @staticmethod
    def file_name(index: int) -> str:
        return f"SL_{index:04d}.dcm"

    def encode(
        self,
        volume: Volume,
        window_center: float = 128.0,
        window_width: float = 256.0
    ) -> List[Tuple[str, bytes]]:
        """
        Encode every slice of a volume in memory.

        Returns:
            List of (file name, encoded bytes), one per slice
        """
        encoded = []
        for index, ds in self._iter_datasets(volume, window_center, window_width):
            buffer = BytesIO()
            pydicom.dcmwrite(buffer, ds, enforce_file_format=True)
            encoded.append((self.file_name(index), buffer.getvalue()))
        return encoded

    def export(
        self,
        volume: Volume,
        output_dir: str | Path,
        window_center: float = 128.0,
        window_width: float = 256.0,
        progress_callback: Optional[Callable[[float], None]] = None
    ) -> List[Path]:
        """
        Write a volume as a DICOM series.

        Args:
            volume: Volume to export
            output_dir: Target directory, created if missing
            window_center: Default window center stored in every slice
            window_width: Default window width stored in every slice
            progress_callback: Optional callback(progress: 0.0-1.0)

        Returns:
            Paths of the written files, in slice order
        """
        target = Path(output_dir)
        target.mkdir(parents=True, exist_ok=True)

        written = []
        for index, ds in self._iter_datasets(volume, window_center, window_width):
            path = target / self.file_name(index)
            pydicom.dcmwrite(path, ds, enforce_file_format=True)
            written.append(path)
            if progress_callback is not None:
                progress_callback(len(written) / volume.num_slices)

        logging.info(f"Exported {len(written)} slices to {target}")
        return written

    def _iter_datasets(
        self,
        volume: Volume,
        window_center: float,
        window_width: float
    ) -> Iterator[Tuple[int, FileDataset]]:
        template = self._series_template(volume, window_center, window_width)
        dtype = np.uint16 if self.bits_allocated == 16 else np.uint8

        for index in range(volume.num_slices):
            sop_uid = generate_uid()
            meta = FileMetaDataset()
            meta.MediaStorageSOPClassUID = SecondaryCaptureImageStorage
            meta.MediaStorageSOPInstanceUID = sop_uid
            meta.TransferSyntaxUID = ExplicitVRLittleEndian
            meta.ImplementationClassUID = self._implementation_uid

            ds = FileDataset("", deepcopy(template), file_meta=meta, preamble=bytes(128))
            ds.SOPInstanceUID = sop_uid
            ds.InstanceNumber = index + 1
            ds.ImagePositionPatient = [0.0, 0.0, float(index)]
            ds.ImageComments = f"Slice {index + 1} of {volume.num_slices}"
            ds.PixelData = volume.data[index].astype(dtype).tobytes()
            yield index, ds

    def _series_template(self, volume: Volume, window_center: float, window_width: float) -> Dataset:
        """Attributes shared by every slice of one export."""
        _, rows, columns = volume.shape
        self._implementation_uid = generate_uid()

        ds = Dataset()
        ds.PatientName = self.patient_name
        ds.PatientID = self.patient_id

        ds.StudyInstanceUID = self.study_instance_uid
        ds.StudyDate = self.study_date
        ds.SeriesInstanceUID = self.series_instance_uid
        ds.SeriesNumber = 1
        ds.SeriesDescription = self.series_description
        ds.Modality = "OT"
        ds.SOPClassUID = SecondaryCaptureImageStorage

        # Image pixel module, unsigned grayscale
        ds.SamplesPerPixel = 1
        ds.PhotometricInterpretation = "MONOCHROME2"
        ds.Rows = rows
        ds.Columns = columns
        ds.BitsAllocated = self.bits_allocated
        ds.BitsStored = self.bits_allocated
        ds.HighBit = self.bits_allocated - 1
        ds.PixelRepresentation = 0
        ds.PixelSpacing = [1.0, 1.0]

        ds.WindowCenter = str(window_center)
        ds.WindowWidth = str(window_width)
        return ds
