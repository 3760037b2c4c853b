import os

from ament_index_python.packages import get_package_share_directory
from launch import LaunchDescription
from launch.actions import DeclareLaunchArgument
from launch.substitutions import LaunchConfiguration
from launch_ros.actions import Node


def generate_launch_description():
    ld = LaunchDescription()

    viewer_dir = get_package_share_directory('all_camera_viewer')
    params_path = os.path.join(
        viewer_dir,
        'config',
        'all_camera_viewer.yaml'
    )

    ld.add_action(DeclareLaunchArgument('params_file', default_value=params_path))
    ld.add_action(DeclareLaunchArgument('left_namespace', default_value='stereo/left'))
    ld.add_action(DeclareLaunchArgument('right_namespace', default_value='stereo/right'))
    ld.add_action(DeclareLaunchArgument('tof_image', default_value='tof/image_grey'))

    ld.add_action(Node(
        package='all_camera_viewer', executable='all_camera_viewer', output='screen',
        name='all_camera_viewer',
        parameters=[LaunchConfiguration('params_file')],
        remappings=[
            ('left/image_color', [LaunchConfiguration('left_namespace'), '/image_color']),
            ('left/camera_info', [LaunchConfiguration('left_namespace'), '/camera_info']),
            ('right/image_color', [LaunchConfiguration('right_namespace'), '/image_color']),
            ('right/camera_info', [LaunchConfiguration('right_namespace'), '/camera_info']),
            ('image_grey', LaunchConfiguration('tof_image')),
        ]
        ))

    return ld
