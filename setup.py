#encoding="utf-8"
import setuptools

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setuptools.setup(
    name="PyIrKeymap",
    version="0.0.1",
    description="Parse infrared remote-control keymap files",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    install_requires=[
          "tomli>=2.0",
      ],
    extras_require={
        "test": ["pytest"],
    },
    package_dir={
        'irkeymap': 'src'
        },
    packages=[
        'irkeymap'
        ],

    python_requires='>=3.8',
)
