import os
from setuptools import setup, find_namespace_packages
from setuptools.command.build_py import build_py as _build

CLASSIFIERS = [
    'Operating System :: POSIX',
    'Operating System :: MacOS :: MacOS X',
    'Intended Audience :: Science/Research',
    'Programming Language :: Python',
    'Programming Language :: Python :: 3',
    'Topic :: Scientific/Engineering'
]

pkgdir = os.environ.get('PACKAGE_DIR', os.path.dirname(os.path.abspath(__file__)))
srcdir = os.path.join(pkgdir, 'python')

def get_version():
    out = "0.0.0.dev0"
    versfile = os.path.join(pkgdir, 'VERSION')
    if os.path.exists(versfile):
        with open(versfile) as fd:
            parts = fd.readline().split()
        if len(parts) > 0:
            out = parts[-1]
    return out

def write_version_mod(version):
    mdcatdir = os.path.join(srcdir, 'mdcat')
    for pkg in [f for f in os.listdir(mdcatdir) \
                  if not f.startswith('_') and not f.startswith('.')
                     and os.path.isdir(os.path.join(mdcatdir, f))]:
        print("setting version for mdcat."+pkg)
        versmodf = os.path.join(mdcatdir, pkg, "version.py")
        with open(versmodf, 'w') as fd:
            fd.write('"""')
            fd.write("""
An identification of the subsystem version.  Note that this module file gets 
(over-) written by the build process.  
""")
            fd.write('"""\n\n')
            fd.write('__version__ = "')
            fd.write(version)
            fd.write('"\n')

class build(_build):

    def run(self):
        write_version_mod(get_version())
        _build.run(self)

setup(name='mdcat',
      version=get_version(),
      description="mdcat: the entity lifecycle and permission engine for a versioned metadata catalog",
      package_dir={'': 'python'},
      scripts=[ os.path.join('scripts', 'mdcatadm.py') ],
      packages=find_namespace_packages(where='python', include=['mdcat.*']),
      install_requires=[
          "requests",
          "pymongo",
          "PyYAML",
          "websockets"
      ],
      extras_require={
          "test": [ "pytest" ]
      },
      python_requires='>=3.8',
      cmdclass={'build_py': build},
      classifiers=CLASSIFIERS,
      zip_safe=False
)
