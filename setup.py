from setuptools import setup
setup(name='kvm-install-vm',
      version='1.0',
      description=("Create and remove local KVM virtual machines from vanilla"
                   " cloud images. Wraps virt-install/virsh and builds the"
                   " cloud-init NoCloud seed iso."),
      author='Sarfaraz Ahmad',
      author_email='sarfaraz.ahmad@live.in',
      license='MIT',
      packages=['kvminstall'],
      python_requires='>=3.7',
      install_requires=['pycdlib', 'click>=7.0', 'pyyaml>=5.1', 'requests'],
      extras_require={'test': ['pytest>=7']},
      zip_safe=False,
      entry_points='''
        [console_scripts]
        kvm-install-vm=kvminstall.cli:main
      ''',
     )
