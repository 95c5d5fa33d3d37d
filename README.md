# chatlogkit

Building blocks for tools that read, index and export chat logs.

## Installation

```
pip install chatlogkit
```

For running the test suite:

```
pip install "chatlogkit[test]"
pytest
```

## What is inside

- `chatlogkit.timeparse` parses time points and time ranges.
  - Timestamps and dates: `1577836800`, `20200101`, `2020-01-01/12:34`, `20200101120000`, RFC 3339.
  - Periods: `2020Q1`, `2020-01`, `2020`.
  - Relative and named times: `3d-ago`, `1h30m-ago`, `today`, `this-week`, `last-month`.
  - Ranges: `a~b`, `a,b`, `a to b`, `last-7d`, `all`.
  - `time_of` and `time_of_with_granularity` return a point (and its `Granularity`); `time_range_of` returns `(start, end)`. Unrecognised input raises `ValueError`.
  - `perfect_time_format` picks the shortest strftime format for a range.
- `chatlogkit.strutil` has small string helpers: `is_normal_string`, `is_numeric`, `str_to_list`, `must_any_to_int` and `split_int64_to_two_int32`.
- `chatlogkit.osutil` has filesystem helpers: `find_files_with_patterns`, `default_work_dir`, `get_dir_size`, `byte_count_si` and `prepare_dir`.
- `chatlogkit.version` reports this package's version with `get_version` and `get_more`.
- `chatlogkit.appver` reads application version details: `read_app_info` and `parse_info_plist` return an `AppInfo`. On macOS the bundle's `Info.plist` is read; on other systems only the path is recorded.
- `chatlogkit.compress` decompresses raw LZ4 blocks and zstd frames with `lz4_decompress` and `zstd_decompress`.
- `chatlogkit.decodehooks` converts string values to maps (`k1=v1,k2=v2`), JSON lists, JSON objects and durations (`1h30m`); `apply_decode_hooks` picks the conversion from a target type.
- `chatlogkit.filecopy` keeps reusable temporary copies of files, keyed by path and content hash, through `FileCopyManager` or the shared `get_temp_copy` and `shutdown`. Its naming and hashing helpers live in `chatlogkit.tempnames`.
- `chatlogkit.dat2img` decodes encrypted `.dat` image files into ordinary image data; `AesKeyValidator` checks candidate AES keys against a sample file.
- `chatlogkit.wxgf` extracts pictures from `wxgf` containers.

## ffmpeg

Converting `wxgf` images (stills to JPEG, animations to GIF) runs an external `ffmpeg` program, taken from the `FFMPEG_PATH` environment variable or found on `PATH`. Without it, `wxam_to_pic` raises `WxgfError`; other image formats decode without it.

## Examples

```python
from chatlogkit.timeparse import time_range_of, time_of

start, end = time_range_of("2020-01-01~2020-01-31")
point = time_of("2020Q2")
```

```python
from chatlogkit.strutil import str_to_list
from chatlogkit.osutil import byte_count_si

str_to_list("a, b, a, c", ",")   # ['a', 'b', 'c']
byte_count_si(1500)             # '1.5 kB'
```

```python
from chatlogkit.filecopy import get_temp_copy, shutdown

copy_path = get_temp_copy("myapp", "/path/to/data.db")
shutdown()
```

```python
from chatlogkit.dat2img import dat_to_image

with open("image.dat", "rb") as fh:
    data, ext = dat_to_image(fh.read())
```

## What it does not do

- There is no settings store: the package does not load, save or merge configuration files. `chatlogkit.decodehooks` only converts individual string values.
- There is no directory watching: nothing here reports file changes as they happen.
- There is no command-line program; everything is used as a library.