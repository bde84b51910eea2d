import random
from datetime import datetime

import pytest

from takeout_organizer.exceptions import NoTimestampError, TimestampWriteError
from takeout_organizer.metadata.exiftool import MetadataReader
from takeout_organizer.models import DetectedType, MediaFile
from takeout_organizer.organization.normalizer import FileNormalizer
from takeout_organizer.organization.relocator import Relocator
from takeout_organizer.reporting import ErrorSink

from conftest import make_image, make_movie, write_sidecar


# --- FileNormalizer ---

def test_png_with_jpg_extension_is_renamed(fake_exiftool, tmp_path):
    img = make_image(tmp_path / "photo.jpg", fmt="PNG")
    media = MediaFile(path=img, album_key="", detected_type=DetectedType.PNG)

    new_path = FileNormalizer(fake_exiftool).fix_extension(media)

    assert new_path == tmp_path / "photo.png"
    assert new_path.exists()
    assert not img.exists()
    assert media.path == new_path
    assert media.original_path == img


def test_correct_extension_is_left_alone_twice(fake_exiftool, tmp_path):
    img = make_image(tmp_path / "photo.JPG")
    media = MediaFile(path=img, album_key="", detected_type=DetectedType.JPEG)
    normalizer = FileNormalizer(fake_exiftool)

    assert normalizer.fix_extension(media) == img
    assert normalizer.fix_extension(media) == img
    assert img.exists()
    assert sorted(p.name for p in tmp_path.iterdir()) == ["photo.JPG"]


def test_rename_collision_uses_counter(fake_exiftool, tmp_path):
    make_image(tmp_path / "photo.png", fmt="PNG")
    make_image(tmp_path / "photo_1.png", fmt="PNG")
    img = make_image(tmp_path / "photo.jpg", fmt="PNG")
    media = MediaFile(path=img, album_key="", detected_type=DetectedType.PNG)

    new_path = FileNormalizer(fake_exiftool).fix_extension(media)
    assert new_path.name == "photo_2.png"


def test_unknown_type_is_not_renamed(fake_exiftool, tmp_path):
    img = make_image(tmp_path / "odd.jpg")
    media = MediaFile(path=img, album_key="", detected_type=DetectedType.UNKNOWN)
    assert FileNormalizer(fake_exiftool).fix_extension(media) == img


def test_write_timestamp_sets_mtime(fake_exiftool, tmp_path):
    img = make_image(tmp_path / "a.jpg")
    media = MediaFile(path=img, album_key="")
    dt = datetime(2020, 5, 6, 7, 8, 9)

    FileNormalizer(fake_exiftool).write_timestamp(media, dt)

    assert datetime.fromtimestamp(img.stat().st_mtime) == dt
    assert media.timestamp == dt


def test_write_timestamp_failure_leaves_file(fake_exiftool, tmp_path):
    img = make_image(tmp_path / "a.jpg")
    fake_exiftool.fail_write.add("a")
    media = MediaFile(path=img, album_key="")

    with pytest.raises(TimestampWriteError):
        FileNormalizer(fake_exiftool).write_timestamp(media, datetime(2020, 1, 1))
    assert img.exists()
    assert media.timestamp is None


# --- Relocator ---

def _relocator(settings, fake_exiftool=None, album_names=None, seed=1):
    reader = MetadataReader(fake_exiftool) if fake_exiftool else None
    sink = ErrorSink()
    return Relocator(settings, sink, reader=reader, album_names=album_names or set(),
                     rng=random.Random(seed)), sink


def test_flat_layout_by_type(settings_factory):
    settings = settings_factory(layout="type")
    src = settings.source_root
    relocator, sink = _relocator(settings)

    pic, _ = relocator.relocate(MediaFile(path=make_image(src / "a.heic"), album_key=""))
    mov, _ = relocator.relocate(MediaFile(path=make_movie(src / "b.MP4"), album_key=""))

    assert pic == settings.output_root / "pictures" / "a.heic"
    assert mov == settings.output_root / "movies" / "b.MP4"
    assert sink.duplicates == []


def test_year_layout_uses_resolved_date(settings_factory, fake_exiftool):
    settings = settings_factory(layout="year")
    img = make_image(settings.source_root / "a.jpg")
    fake_exiftool.set_tags("a", DateTimeOriginal="2019:08:07 06:05:04")
    relocator, _ = _relocator(settings, fake_exiftool)

    dest, _ = relocator.relocate(MediaFile(path=img, album_key=""))
    assert dest == settings.output_root / "2019" / "pictures" / "a.jpg"


def test_year_layout_reads_sidecar(settings_factory, fake_exiftool):
    settings = settings_factory(layout="year")
    mov = make_movie(settings.source_root / "b.mp4")
    write_sidecar(mov, "01.06.2022, 09:30:00 UTC")
    relocator, _ = _relocator(settings, fake_exiftool)

    dest, _ = relocator.relocate(MediaFile(path=mov, album_key=""))
    assert dest == settings.output_root / "2022" / "movies" / "b.mp4"


def test_year_layout_without_date_is_skipped(settings_factory, fake_exiftool):
    settings = settings_factory(layout="year")
    img = make_image(settings.source_root / "nodate.jpg")
    relocator, _ = _relocator(settings, fake_exiftool)

    with pytest.raises(NoTimestampError, match="No date found"):
        relocator.relocate(MediaFile(path=img, album_key=""))
    assert img.exists()
    assert not settings.output_root.exists() or not any(settings.output_root.rglob("nodate.jpg"))


def test_collision_keeps_both_files(settings_factory):
    settings = settings_factory(layout="type")
    src = settings.source_root
    first = make_image(src / "one" / "same.jpg")
    second = make_image(src / "two" / "same.jpg")
    relocator, sink = _relocator(settings)

    d1, _ = relocator.relocate(MediaFile(path=first, album_key="one"))
    d2, _ = relocator.relocate(MediaFile(path=second, album_key="two"))

    pictures = settings.output_root / "pictures"
    names = sorted(p.name for p in pictures.iterdir())
    assert len(names) == 2
    assert d1 == pictures / "same.jpg"
    assert d2.name.startswith("same_duplicate_")
    assert d2.suffix == ".jpg"
    assert d2.stem.rsplit("_", 1)[1].isdigit()
    assert d1.exists() and d2.exists()
    assert len(sink.duplicates) == 1


def test_album_update_for_known_folder(settings_factory):
    settings = settings_factory(layout="type")
    img = make_image(settings.source_root / "Summer Trip" / "a.jpg")
    relocator, _ = _relocator(settings, album_names={"summer trip"})

    dest, update = relocator.relocate(MediaFile(path=img, album_key="summer trip"))

    assert update is not None
    assert update.collection == "summer trip"
    assert update.item.name == "a.jpg"
    assert update.item.relative_path == "pictures/a.jpg"
    assert update.item.full_path == str(dest)


def test_no_album_update_for_unknown_folder(settings_factory):
    settings = settings_factory(layout="type")
    img = make_image(settings.source_root / "Photos from 2020" / "a.jpg")
    relocator, _ = _relocator(settings, album_names={"summer trip"})

    _, update = relocator.relocate(MediaFile(path=img, album_key="photos from 2020"))
    assert update is None
