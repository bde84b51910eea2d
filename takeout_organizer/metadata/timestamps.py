import logging
from datetime import datetime
from typing import Optional, Tuple

from ..exceptions import NoTimestampError
from ..models import ExtractedMetadata, MediaFile, SidecarMetadata
from .dates import parse_sidecar_date, parse_exif_date
from .exiftool import MetadataReader
from .sidecar import read_sidecar


class TimestampResolver:
    """
    Picks one capture time for a file.

    Priority (first parseable value wins):
      1. Sidecar taken time
      2. DateTimeOriginal
      3. CreateDate
      4. FileModifyDate
    """

    def resolve(self,
                sidecar: Optional[SidecarMetadata],
                extracted: Optional[ExtractedMetadata]) -> Tuple[datetime, str]:
        """
        Returns (timestamp, source name).
        Raises NoTimestampError when every source is missing or unparseable.
        """
        if sidecar and sidecar.taken_time:
            dt = parse_sidecar_date(sidecar.taken_time)
            if dt:
                return dt, "sidecar"
            # Falls through silently; only the final failure is reported
            logging.debug(f"Unparseable sidecar date '{sidecar.taken_time}' in {sidecar.path}")

        if extracted:
            for field_name, raw in extracted.date_fields():
                dt = parse_exif_date(raw)
                if dt:
                    return dt, field_name

        raise NoTimestampError("No timestamp found in sidecar or embedded metadata")

    def resolve_for(self, media: MediaFile, reader: MetadataReader) -> datetime:
        """Fresh resolution: reads the sidecar and queries the tool again."""
        _, extracted = reader.read(media.path)
        dt, _ = self.resolve(read_sidecar(media), extracted)
        return dt
